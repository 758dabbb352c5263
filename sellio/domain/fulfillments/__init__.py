"""Fulfillments domain - downloads, meeting details and live access"""

"""Reminders domain - scheduled reminder and expiry jobs"""

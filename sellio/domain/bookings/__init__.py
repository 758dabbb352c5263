"""Bookings domain - buyer cancel and one-time reschedule"""

"""Coupons domain"""

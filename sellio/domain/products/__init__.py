"""Products domain - type-specific product configuration"""

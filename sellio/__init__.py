"""Sellio - booking slots and order lifecycle for creator storefronts"""

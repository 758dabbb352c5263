"""Slots domain - generating, listing and capacity-checking bookable time slots"""

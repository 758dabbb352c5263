"""Orders domain - checkout, payment slips and the order state machine"""

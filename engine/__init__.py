"""engine

Game state machine, snapshot codec, persistence stores and the
single-owner session the driver talks to.
"""

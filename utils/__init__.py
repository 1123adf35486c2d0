"""
Utils: shared helpers (angles, logging, visualization).
"""

"""core

Pure domain layer (UI/persistence independent):
- data model (state)
- balance constants
- economy formulas
"""

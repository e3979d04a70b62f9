"""
Pydantic schemas shared by persistence and transport.
"""

"""MG Consulting client portal API"""

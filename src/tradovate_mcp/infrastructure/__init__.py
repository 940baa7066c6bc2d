"""Infrastructure layer"""

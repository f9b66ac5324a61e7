"""PyQt5 map surface."""

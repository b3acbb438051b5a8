"""Shule System package.

Multi-tenant school management backend organised by feature modules
(users, academic, necta, finance, hostel, content, teachers, transport)
with a thin Flask JSON controller layer over service/repository layers.
"""

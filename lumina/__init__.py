"""Lumina: galleries, share links and invoices for photographers."""

"""Tandem Daily puzzle delivery and progress service."""

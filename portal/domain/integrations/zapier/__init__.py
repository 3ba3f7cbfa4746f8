"""Zapier integration - outbound event webhooks"""

"""Third-party integrations: QuickBooks, calendars, Zapier and Stripe"""

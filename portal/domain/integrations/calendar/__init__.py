"""Calendar integration - Google and Microsoft busy-time sync"""

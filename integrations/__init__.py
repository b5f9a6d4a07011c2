"""
External service integrations: exchange rates and Telegram notifications.
"""

"""External service integrations (AI providers, Twilio)."""

"""Stripe billing portal: subscription checkout and the webhook that applies plan changes."""

"""Repository layer for the affiliate commission core.

Provides query and write methods for the commission entities:
- affiliates: get_by_id, list_all, create, update_rates
- templates: get_by_id, list_active, get_active_defaults,
             get_first_active_by_tier, clear_other_defaults, save
- rate_history: append, get_by_affiliate
- commissions: list_entries, record
"""

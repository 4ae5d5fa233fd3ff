"""
Per-session state machines.

ConversionWorkflow drives one file from selection to download;
SubscriptionWorkflow drives plan selection through bank transfer confirmation.
"""

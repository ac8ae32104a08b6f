"""Core building blocks: errors, domain models, timers, interfaces."""

"""Constants, exceptions and logging setup shared across proxy-vesting."""

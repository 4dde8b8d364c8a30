"""ModBoard Utilities - Timestamp and text helpers."""

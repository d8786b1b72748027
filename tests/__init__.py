"""Tests for waybar-mpris."""

"""Tests for the fix_dockerfile package."""

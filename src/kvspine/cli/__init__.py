"""kvspine command-line interface."""

"""Updater configuration: schema, validators and loader."""

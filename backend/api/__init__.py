"""Typhoon Tracker HTTP API and source aggregation"""

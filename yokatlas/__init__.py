"""Scraper for YOK-ATLAS department admission tables."""

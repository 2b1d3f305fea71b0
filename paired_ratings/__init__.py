"""Paired Ratings: a shared movie and TV watchlist rated by two people"""

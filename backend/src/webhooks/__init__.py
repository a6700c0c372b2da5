"""Inbound webhook HTTP boundary"""

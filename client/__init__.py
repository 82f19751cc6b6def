"""Command-line client for uploading recordings in chunks"""

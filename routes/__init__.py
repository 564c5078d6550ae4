"""HTTP route blueprints"""

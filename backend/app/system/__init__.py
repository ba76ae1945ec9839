"""
app/system/__init__.py

领域模块共用的平台基础设施
"""

"""
app/inspection/__init__.py

汽车检验预约领域：时段计算、预约编号、预约生命周期，
以及负责分发通知的事件处理器
"""

"""平台适配器。"""

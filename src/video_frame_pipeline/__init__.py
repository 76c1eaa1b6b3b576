"""
Асинхронный пайплайн обработки видео: загрузка -> извлечение кадров -> архив.
"""

__version__ = "0.1.0"

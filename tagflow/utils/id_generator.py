# tagflow/utils/id_generator.py
import time
import uuid


def generate_turn_id() -> str:
    """生成按时间排序的回合 ID: trn_<毫秒时间戳>_<随机后缀>"""
    return f"trn_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def generate_timestamp() -> float:
    """获取时间戳"""
    return time.time()

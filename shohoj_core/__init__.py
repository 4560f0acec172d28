"""ShohojCare chat relay.

把客户端的对话记录转发给带 persona 的 Gemini 模型，并把回复流式返回：
请求校验、persona 解析、prompt 组装、模型流式调用、HTTP relay 以及客户端消费。
"""

__version__ = "0.1.0"

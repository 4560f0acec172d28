"""领域模型与协议。

- models：ChatMessage / PersonaConfig / ChatRequest / ChatStreamChunk。
- persona：默认 persona、persona 解析、PersonaStore 协议。
- cancellation：CancelToken。
- exceptions：业务异常类型。
"""

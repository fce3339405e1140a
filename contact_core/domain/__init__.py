"""领域层模型与协议。

包含：
- models: Contact / Message / Directory 以及导入候选、摘要、Provider 请求结果等数据结构。
- stores: 键值存储、目录存储与会话存储的 Protocol 抽象。
- exceptions: 业务异常类型定义。
"""

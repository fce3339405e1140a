"""Contact Core 顶层包。

该包提供联系人目录导入与会话存储的核心实现，
包括配置加载、领域模型、电话号码规范化、vCard/CSV 解析、
去重合并、共享键值存储上的目录与会话持久化、摘要轮询、
健康检查以及外部文本理解服务的窄接口封装。
"""

from contact_core.api.service import ContactService

__all__ = ["ContactService"]

from pydantic import BaseModel


# 通用回應模型
class ResponseBase(BaseModel):
    success: bool = True

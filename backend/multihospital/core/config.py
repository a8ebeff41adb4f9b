from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "MultiHospital"

    # 数据库配置(实体库)
    DATABASE_URL: str
    # 账号/角色库, 未配置时与实体库共用同一个数据库
    IDENTITY_DATABASE_URL: str | None = None
    # SQL日志输出
    DB_ECHO: bool = False

    #Token过期时间(分钟)
    TOKEN_EXPIRE_TIME: int = 60*24
    #密钥(Token)
    SECRET_KEY: str = "MULTIHOSPITAL"
    #加密方式(Token) HS256对称加密,RS256非对称加密
    TOKEN_ALGORITHM: str = "HS256"

    # Redis配置
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None

    # 图片返回方式: inline(base64内联) / path(相对访问路径)
    IMAGE_REF_MODE: str = "inline"
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    # 跨域白名单
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # 日志目录
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"

    #正确返回码
    SUCCESS_CODE: int = 0 #正确返回码
    #错误码

    #主
    UNKNOWN_ERROR_CODE: int = 97 #未知错误
    HTTP_ERROR_CODE: int = 98 #HTTP错误
    REQ_ERROR_CODE: int = 99 #请求参数错误

    #auth
    REGISTER_FAILED_CODE: int = 100 #注册失败
    LOGIN_FAILED_CODE: int = 101 #登入失败
    INSUFFICIENT_AUTHORITY_CODE: int = 102 #权限不足
    TOKEN_INVALID_CODE: int = 105 #Token失效

    #资源
    NOT_FOUND_CODE: int = 301 #数据不存在

    #级联删除
    MISSING_CONTACT_INFO_CODE: int = 401 #依赖记录缺少邮箱
    ROLE_REVOCATION_FAILED_CODE: int = 402 #角色撤销失败
    IDENTITY_DELETION_FAILED_CODE: int = 403 #账号删除失败

    #并发/状态
    CONCURRENCY_CONFLICT_CODE: int = 409 #并发写冲突
    INVALID_STATUS_CODE: int = 410 #预约状态非法

    @property
    def identity_database_url(self) -> str:
        return self.IDENTITY_DATABASE_URL or self.DATABASE_URL


settings = Settings()

from pydantic import BaseModel, field_validator

class LoginIn(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def email_normalize(cls, v: str):
        return v.strip().lower()

class LoginUser(BaseModel):
    id: int
    email: str
    name: str
    role: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: LoginUser

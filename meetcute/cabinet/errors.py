from fastapi import HTTPException

from meetcute.services.errors import BillingError


def billing_http_error(error: BillingError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_detail())

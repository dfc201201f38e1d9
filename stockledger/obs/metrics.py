# stockledger/obs/metrics.py
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter("http_requests_total", "HTTP requests", ["method", "path", "code"])
http_request_duration = Histogram(
    "http_request_duration_seconds", "HTTP request duration seconds", ["method", "path"]
)

# 台账：每条成功落账 +1（按动作类型）
ledger_movements_total = Counter(
    "ledger_movements_total", "Journaled stock movements", ["movement_type"]
)
# 库存事务：成功 / 业务拒绝 / 冲突耗尽
ledger_ops_total = Counter("ledger_ops_total", "Ledger operations", ["op", "outcome"])
ledger_retries_total = Counter("ledger_retries_total", "Ledger transaction retries", ["op"])
ledger_op_duration = Histogram(
    "ledger_op_duration_seconds", "Ledger operation duration seconds", ["op"]
)
ledger_invariant_violations_total = Counter(
    "ledger_invariant_violations_total", "Repository invariant guard trips", ["op"]
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        http_requests_total.labels(request.method, path, str(response.status_code)).inc()
        http_request_duration.labels(request.method, path).observe(elapsed)
        return response

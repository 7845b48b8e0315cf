import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from checkout_flow.cli.checkout import cli
from checkout_flow.integrations.payment_gateways import CheckoutError
from checkout_flow.models.session import MethodConfig, MethodMode, PaymentMethodType


CATALOGUE = {
    PaymentMethodType.SSLCOMMERZ: MethodConfig(PaymentMethodType.SSLCOMMERZ, enabled=True, mode=MethodMode.LIVE),
    PaymentMethodType.PAYPAL: MethodConfig(PaymentMethodType.PAYPAL, enabled=False),
}


def test_methods_lists_catalogue():
    with patch(
        "checkout_flow.cli.checkout.BackendClient.fetch_method_configs",
        new=AsyncMock(return_value=CATALOGUE),
    ) as fetch:
        result = CliRunner().invoke(cli, ["methods", "--token", "abc"])

    assert result.exit_code == 0
    assert "SSLCOMMERZ   enabled   live" in result.output
    assert "PAYPAL       disabled  test" in result.output
    fetch.assert_awaited_once_with(auth_token="abc")


def test_methods_as_json():
    with patch(
        "checkout_flow.cli.checkout.BackendClient.fetch_method_configs",
        new=AsyncMock(return_value=CATALOGUE),
    ):
        result = CliRunner().invoke(cli, ["methods", "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output)[0] == {
        "method": "SSLCOMMERZ",
        "enabled": True,
        "mode": "live",
        "supported": True,
    }


def test_methods_reports_backend_error():
    with patch(
        "checkout_flow.cli.checkout.BackendClient.fetch_method_configs",
        new=AsyncMock(side_effect=CheckoutError("backend unreachable")),
    ):
        result = CliRunner().invoke(cli, ["methods"])

    assert result.exit_code == 1
    assert "backend unreachable" in result.output


def test_config_prints_settings():
    result = CliRunner().invoke(cli, ["config"])

    assert result.exit_code == 0
    assert "backend_base_url" in json.loads(result.output)

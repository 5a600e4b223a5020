import unittest

from custom_actions_mcp.engine.errors import ValidationError
from custom_actions_mcp.engine.models import (
    ActionDefinition,
    ApiConfig,
    AuthType,
    Parameter,
    ParamLocation,
)
from custom_actions_mcp.engine.validation import (
    STEP_API_CONFIG,
    STEP_BASIC_INFO,
    STEP_PARAMETERS,
    check_action,
    ensure_valid,
    validate_action,
)


def valid_action() -> ActionDefinition:
    return ActionDefinition(
        name="get_weather",
        description="Look up the current weather for a city",
        api_config=ApiConfig(base_url="https://api.ex.com", endpoint="/weather"),
        parameters=[Parameter(name="city", description="City name")],
    )


class TestValidateAction(unittest.TestCase):

    def test_valid(self):
        self.assertEqual(validate_action(valid_action()), {})
        ensure_valid(valid_action())

    def test_name_rules(self):
        action = valid_action()
        action.name = "Get-Weather"
        self.assertIn("name", validate_action(action))
        action.name = "ab"
        self.assertIn("at least 3", validate_action(action)["name"])

    def test_short_description(self):
        action = valid_action()
        action.description = "Too short"
        result = check_action(action)
        self.assertFalse(result.ok)
        self.assertEqual(result.step, STEP_BASIC_INFO)

    def test_api_config_rules(self):
        action = valid_action()
        action.api_config.base_url = "api.ex.com"
        action.api_config.endpoint = "weather"
        action.api_config.auth_type = AuthType.BEARER
        errors = validate_action(action)
        self.assertIn("apiConfig.baseUrl", errors)
        self.assertIn("apiConfig.endpoint", errors)
        self.assertIn("apiConfig.authValue", errors)
        self.assertEqual(check_action(action).step, STEP_API_CONFIG)

    def test_parameter_rules(self):
        action = valid_action()
        action.parameters = [
            Parameter(name="qty", description="Quantity", location=ParamLocation.BODY),
            Parameter(name="city", description="City"),
            Parameter(name="city", description="City name again"),
        ]
        errors = validate_action(action)
        self.assertIn("parameters.0.bodyPath", errors)
        self.assertIn("parameters.1.description", errors)
        self.assertEqual(errors["parameters.1.name"], "Duplicate parameter name.")
        self.assertEqual(errors["parameters.2.name"], "Duplicate parameter name.")
        self.assertEqual(check_action(action).step, STEP_PARAMETERS)

    def test_ensure_valid_raises(self):
        action = valid_action()
        action.name = ""
        with self.assertRaises(ValidationError) as ctx:
            ensure_valid(action)
        self.assertIn("name", ctx.exception.errors)
        # also usable as a plain ValueError
        self.assertIsInstance(ctx.exception, ValueError)


if __name__ == '__main__':
    unittest.main()

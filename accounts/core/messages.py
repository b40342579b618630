"""Message catalogue — maps response message keys to display text."""

MESSAGES: dict[str, str] = {
    # auth
    "auth.emailCodeSent": "Verification code sent to your email",
    "auth.emailCodeSentWithOtp": "Verification code {code} sent to your email",
    "auth.otpVerified": "OTP verified successfully",
    "auth.loggedIn": "Logged in successfully",
    "auth.passwordChanged": "Password changed successfully",
    "auth.logoutSuccess": "Logged out successfully",
    "auth.deleteAccount": "Account deleted successfully",
    "auth.invalidCredentials": "Invalid email or password",
    "auth.unauthorizedRequest": "Unauthorized request",
    "auth.invalidToken": "Invalid or expired token",
    "auth.tokenMismatch": "Session expired, please login again",
    "auth.unauthorizedRole": "You are not allowed to access this resource",
    "auth.accountBlocked": "Your account has been blocked. Please contact {support_email}",
    # success
    "success.userProfile": "User profile fetched successfully",
    "success.profileUpdated": "Profile updated successfully",
    "success.usersData": "Users fetched successfully",
    "success.noRecordsFound": "No records found",
    "success.healthy": "Service is healthy",
    # errors
    "error.emailExist": "Email already exists",
    "error.invalidEmail": "Invalid email",
    "error.userNotFound": "User not found",
    "error.userNotExist": "User does not exist",
    "error.emailAlreadyVerified": "Email is already verified",
    "error.invalidOtp": "Invalid OTP",
    "error.otpNotVerified": "Please verify the OTP before resetting your password",
    "error.invalidFile": "Only {extensions} files up to {max_mb} MB are accepted",
    "error.tooManyRequests": "Too many requests",
    "error.notFound": "Resource not found",
    "error.methodNotAllowed": "Method not allowed",
    "error.serverError": "Something went wrong. Please try again later",
    # validation
    "validation.invalid": "Invalid request",
    "validation.strongPassword": (
        "Password must be at least 8 characters long and contain an uppercase letter, "
        "a lowercase letter, a digit and a special character"
    ),
    "validation.confirmPasswordNotMatch": "Passwords do not match",
    "validation.newAndOldPasswordSame": "New password must differ from the old password",
    "validation.invalidOldPassword": "Old password is incorrect",
    "validation.phonePairRequired": "phone_code and phone_number must be provided together",
}


def translate(key: str, **params) -> str:
    """Resolve a message key, formatting ``{param}`` placeholders.

    Unknown keys are returned unchanged so free-form text passes through.
    """
    template = MESSAGES.get(key, key)
    if not params:
        return template
    try:
        return template.format(**params)
    except (KeyError, IndexError):
        return template
